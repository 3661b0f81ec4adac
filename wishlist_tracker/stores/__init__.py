"""Retailer scrapers that turn a product URL into a name, price and image."""