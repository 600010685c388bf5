"""Command line client for the dispatch API."""
