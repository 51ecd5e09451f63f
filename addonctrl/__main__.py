"""
CLI entry point, when used as a module: `python -m addonctrl`.
"""
from addonctrl import cli

if __name__ == '__main__':
    cli.main()
