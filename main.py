"""
Entrypoint: fetch a URL (or discover where it redirects to) with a configured crawler
"""

import argparse
import sys
from urllib.parse import urlsplit

import structlog

from crawler.config import Config
from crawler.context import Crawler
from crawler.exceptions import CrawlerError
from crawler.log import configure_logging


def main(argv=None):
    """Parse arguments, configure logging and run a single request"""
    parser = argparse.ArgumentParser(description="Fetch a URL through the crawler")
    parser.add_argument("url")
    parser.add_argument("--config", default=None, help="path to a config.yaml")
    parser.add_argument("--discover", action="store_true", help="print the final URL after redirects")
    parser.add_argument("--download", metavar="DESTINATION", help="save the body to a file")
    args = parser.parse_args(argv)

    config = Config(args.config)
    configure_logging(config.get('logging', 'level', default="INFO"),
                      config.get('logging', 'json', default=True))
    logger = structlog.get_logger(__name__)

    parts = urlsplit(args.url)
    with Crawler(parts.hostname) as crawler:
        crawler.configure(config)
        crawler.secured = parts.scheme != "http"
        try:
            if args.discover:
                print(crawler.discover(args.url))
            elif args.download:
                size = crawler.download(args.url, args.download)
                logger.info("download_finished", size=size)
            else:
                content = crawler.get(args.url)
                sys.stdout.write(content or "")
        except CrawlerError as e:
            logger.error("request_failed", url=args.url, error=str(e))
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
