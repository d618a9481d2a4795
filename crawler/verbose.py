"""
Keep the transport's verbose output around for inspection.
"""

from .context import Crawler


class VerboseMemoryMixin:
    """Accumulates verbose transport output on the crawler.

    The buffer is cleared before every request unless
    ``persist_verbose_output`` is set.
    """

    verbose_output = ""
    persist_verbose_output = False

    def clear_verbose_output(self):
        self.verbose_output = ""

    def handle_verbose(self, text: str):
        self.verbose_output += text

    def before_request(self, request):
        if not self.persist_verbose_output:
            self.clear_verbose_output()
        super().before_request(request)


class VerboseCrawler(VerboseMemoryMixin, Crawler):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.verbose = True
