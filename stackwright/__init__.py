"""
stackwright - CloudFormation stack operations you can wait on or watch.

Applies stacks through change sets and deletes them, following stack events
(including those of nested stacks) until each operation settles, and reports
the outcome as a success, a warning or a failure.
"""

__version__ = "1.0.0"

from stackwright.core.exceptions import StackwrightError

__all__ = ["StackwrightError"]
