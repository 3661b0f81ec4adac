[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "wishlist-tracker"
version = "0.1.0"
description = "Track product prices at online retailers and get e-mail alerts when they drop."
requires-python = ">=3.10"
keywords = ["price tracker", "wishlist", "scraper", "price alert", "e-mail", "flask"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Web Environment",
    "Framework :: Flask",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
]
dependencies = [
    "flask>=2.2",
    "requests>=2.28",
    "beautifulsoup4>=4.11",
    "matplotlib>=3.6",
    "python-dotenv>=1.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "responses>=0.23",
]

[project.scripts]
wishlist-tracker = "wishlist_tracker.server:main"
wishlist-probe = "wishlist_tracker.probe:main"

[tool.hatch.build.targets.wheel]
packages = ["wishlist_tracker"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]
