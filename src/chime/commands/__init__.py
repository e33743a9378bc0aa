"""
Chime CLI Commands

Command modules register argparse subparsers via register_parsers(); each
command returns a JSON-serializable result dict.
"""
