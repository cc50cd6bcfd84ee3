#!/usr/bin/env python3
"""
Sleeper Fantasy Bot - Entry Point

Telegram (and optional Discord) bot for Sleeper NFL draft and weekly reminders.
The actual implementation is in the sleeperbot package.
"""

if __name__ == "__main__":
    from sleeperbot import main
    main()
