"""calfetch - periodic calendar feed fetcher.

Downloads iCalendar feeds on a timer, filters the events to a look-ahead
window and publishes a bounded, sorted event list to a listener. Imports are
kept light; the fetcher classes live in their own modules.
"""

__version__ = "0.1.0"
