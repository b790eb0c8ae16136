#!/usr/bin/env python3

from termcolor import colored

STATUS_COLORS = {
    'info': 'cyan',
    'success': 'green',
    'error': 'red',
    'warning': 'yellow'
}

def print_status(message: str, status: str = 'info') -> None:
    """Print colored status messages."""
    print(colored(message, STATUS_COLORS.get(status, 'white')))
