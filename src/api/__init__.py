"""HTTP layer for the Number Analyzer."""
