"""
Console output handler
"""
from davcal.events import Occurrence
from davcal.formatter import format_occurrence


class Handler:
    """Console output handler class"""

    def __call__(self, occurrences: list[Occurrence], verbose: bool = False) -> None:
        """
        Print one line per occurrence to stdout

        Args:
            occurrences: Occurrences in display order
            verbose: Also print event descriptions
        """
        for occurrence in occurrences:
            print(format_occurrence(occurrence, verbose), flush=True)
