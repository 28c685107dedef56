"""
Operational command-line tools (migration, export, sequence repair, setup)
"""
