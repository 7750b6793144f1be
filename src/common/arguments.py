"""
Command line parsing shared by the toolbox commands.
"""

import argparse
import sys

USAGE_ERROR = 1


class ToolboxArgumentParser(argparse.ArgumentParser):
    """
    ArgumentParser that exits with status 1 on a bad argument.

    Subparsers created through add_subparsers() use this class too.
    --help still exits with 0.
    """

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(USAGE_ERROR, f"{self.prog}: error: {message}\n")
