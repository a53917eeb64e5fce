"""Launcher commands and the argparse-based command engine."""
