"""IDE and plugin repositories.

This package resolves build dependencies of an IDE plugin project:
- artifacts.py: Maven-style coordinates and the HTTP artifact fetcher
- ide.py: IDE distributions from a local installation or the IDE repository
- plugins.py: plugin dependencies, bundled, from the plugin repository or sibling modules
- descriptor.py: plugin.xml reading from files, jars and plugin directories
"""
