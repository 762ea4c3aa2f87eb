"""Parsing of RouterOS-style tunnel management commands."""