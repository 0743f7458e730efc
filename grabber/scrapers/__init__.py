from grabber.scrapers.instagram import InstagramScraper
from grabber.scrapers.rarbg import RarbgScraper

__all__ = ["InstagramScraper", "RarbgScraper"]
