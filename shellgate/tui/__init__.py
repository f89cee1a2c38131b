"""Textual prompts for approving shell commands and backgrounding them."""
