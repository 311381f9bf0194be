"""Command-line interface for Claude Tracker."""
