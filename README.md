# wishlist-tracker

A small web service that watches product pages at online retailers, records
one price per product per UTC day, and sends e-mail when a price drops or
reaches the target you set.

Supported stores:

- Chemist Warehouse (`chemistwarehouse.com.au`)
- Woolworths (`woolworths.com.au`)
- iHerb (`iherb.com` and its regional sites)

## Installing

```
pip install .
pip install ".[test]"   # with the test tools
```

## Running the server

```
wishlist-tracker
```

This opens the SQLite database, starts the price-checking schedule in the
background and serves the HTTP API until it gets SIGINT or SIGTERM.

Settings come from environment variables. If a `.env` file exists in the
working directory it is loaded first. Variables already set in the
environment take precedence over it.

| Variable         | Default          | Meaning                                              |
|------------------|------------------|------------------------------------------------------|
| `SERVER_PORT`    | `8080`           | HTTP port                                            |
| `DATABASE_PATH`  | `./wishlist.db`  | SQLite database file                                 |
| `SCHEDULER_CRON` | `0 3 * * *`      | When to check every item (UTC)                       |
| `SMTP_HOST`      | `smtp.gmail.com` | Mail server                                          |
| `SMTP_PORT`      | `587`            | Mail server port                                     |
| `SMTP_USERNAME`  | *(empty)*        | Mail login. If empty, e-mails are skipped            |
| `SMTP_PASSWORD`  | *(empty)*        | Mail password                                        |
| `SMTP_FROM`      | *(empty)*        | Sender address                                       |
| `DEBUG`          | `false`          | Log at debug level (`1`/`t`/`true`, `0`/`f`/`false`) |

If a port variable is not a valid integer, a warning is logged and the
default is used.

`SCHEDULER_CRON` takes five fields (minute, hour, day of month, month, day of
week). Each field accepts:

- lists, ranges and steps;
- month and weekday names;
- the descriptors `@yearly`, `@annually`, `@monthly`, `@weekly`, `@daily`,
  `@midnight` and `@hourly`.

The server does not start if the expression is invalid.

Mail is sent over SMTP with STARTTLS. The server refuses to send without
encryption unless the host is `localhost`, `127.0.0.1` or `::1`.

An example `.env`:

```
SMTP_USERNAME=alerts@example.com
SMTP_PASSWORD=password
SMTP_FROM=alerts@example.com
SCHEDULER_CRON=0 3 * * *
```

## HTTP API

| Method   | Path                     | Purpose                                                  |
|----------|--------------------------|----------------------------------------------------------|
| `POST`   | `/items`                 | Start tracking: `{"email", "url", "target_price"?}`      |
| `GET`    | `/items?email=...`       | List an address's items, newest first, with latest price |
| `GET`    | `/items/<id>/history`    | Daily price history, oldest first                        |
| `GET`    | `/items/<id>/chart.png`  | PNG chart of the price history                           |
| `POST`   | `/items/<id>/check`      | Check the price now and alert on a drop or target        |
| `PATCH`  | `/items/<id>/notify`     | Toggle the item's `notified` (muted) flag                |
| `PATCH`  | `/items/<id>/target`     | Set `{"target_price": n}` or clear it with `null`        |
| `DELETE` | `/items/<id>`            | Stop tracking an item, with its prices and notifications |
| `GET`    | `/health`                | Returns `{"status": "ok"}`                               |

Registering an item:

- An invalid body, e-mail address or URL answers `400`.
- A URL from an unsupported store also answers `400`.
- Registering the same URL twice for one address answers `409`.
- A page that cannot be scraped answers `422`, with the scraper's message under `details`.

A chart needs at least two days of prices. Otherwise the endpoint answers `422`.

A manual check alerts in these cases:

- the new price is below the last recorded one;
- the new price is at or below the target.

The alert goes out as a single e-mail, unless one was already sent for that
price. The reply tells whether it was sent (`"notified"`).

The server also serves files from `web/` under the working directory:

- `web/index.html` at `/` and `/index.html`;
- `web/assets` under `/assets`;
- `web/static` under `/static`.

## Scheduled checks

On every tick of the cron schedule, each item is scraped again and its price
recorded. An item gets an alert when its price fell since the last check or
is at or below its target, and no alert was already sent for that price.

Each address gets one digest e-mail per run listing all its alerts. With a
single alert, a normal alert e-mail is sent instead. The digest shows each
product's first recorded price as the old price.

Once the mail is sent, each alerted item is marked as notified. Later, when a
notified item's price rises:

- above its target, or at all if it has no target: the flag is cleared;
- but stays at or below the target: the flag stays set.

## Trying a store scraper

```
wishlist-probe https://www.woolworths.com.au/shop/productdetails/708119/monster-energy-juice-mango-loco
```

This prints the detected store and the product's name, price and image URL.
Without an argument it uses the Woolworths URL above. It exits with status 1
if the store is not recognised or the page cannot be scraped.

## Using it as a library

The parts can also be used on their own:

- `wishlist_tracker.db.Database`: the storage.
- `wishlist_tracker.stores.registry.detect`: finds the scraper for a URL.
- `wishlist_tracker.chart.render`: draws a PNG from a price history.
- `wishlist_tracker.notify.Emailer`: sends the e-mails.
- `wishlist_tracker.poller.Poller`: runs the checks. Its `run_now()` method runs one pass at once.
- `wishlist_tracker.api.create_app`: builds the Flask application.

## What it does not do

- The package ships no front-end. `/` answers `404` unless you provide your
  own `web/index.html`.
- Pages are fetched with a plain HTTP client. Sites that block automated
  clients may refuse the request, and the scrape then fails.