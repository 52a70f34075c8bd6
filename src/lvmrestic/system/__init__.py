# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/lvmrestic/system/__init__.py

"""Process-level plumbing: commands, logging, signals, console output."""
