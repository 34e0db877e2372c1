"""Wrappers around the external tools the CLI drives.

Each module hides one collaborator (truffle, the development chain, the IPFS
daemon, the wrapper front-end) behind a few functions, so commands never build
command lines or HTTP requests themselves.
"""
