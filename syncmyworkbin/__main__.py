#!/usr/bin/env python3

from syncmyworkbin.cli import run

if __name__ == "__main__":
    run()
