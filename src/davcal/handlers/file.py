"""
File output handler
"""
import logging
from pathlib import Path

from davcal.events import Occurrence
from davcal.formatter import format_occurrence


class Handler:
    """File writer handler class"""

    def __init__(self, output_file: str):
        """
        Initialize file output handler

        Args:
            output_file: Output file path
        """
        self.output_file = Path(output_file)

    def __call__(self, occurrences: list[Occurrence], verbose: bool = False) -> None:
        """
        Write the rendered occurrences to file

        Args:
            occurrences: Occurrences in display order
            verbose: Also write event descriptions
        """
        try:
            with open(self.output_file, 'w', encoding='utf-8') as f:
                for occurrence in occurrences:
                    f.write(format_occurrence(occurrence, verbose) + '\n')
            logging.info(f"{len(occurrences)} events written to file: {self.output_file}")

        except OSError as e:
            logging.error(f"Failed to write file: {e}")
