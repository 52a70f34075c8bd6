# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/lvmrestic/cli/__init__.py

"""Command Line Interface package for lvmrestic."""

from .main import main, app

__all__ = ['main', 'app']
