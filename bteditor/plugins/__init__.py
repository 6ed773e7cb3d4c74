"""Bundled node-type catalog plugins."""
