#!/usr/bin/env python3
"""
Setup script for reminders-sync package.

This file exists for backward compatibility with tools that expect setup.py.
All package metadata is defined in pyproject.toml (PEP 621).
"""

from setuptools import setup

setup()
