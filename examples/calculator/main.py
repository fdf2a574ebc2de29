"""
Calculator server composed from modules.
To run: wirecall serve main:modules --port 9090   (from examples/calculator)
Then:   wirecall call calc.add 2 3 --port 9090
"""
import sys
from pathlib import Path

# example lives in examples/calculator
sys.path.insert(0, str(Path(__file__).resolve().parent))

from wirecall import HandlerModule, Server, Settings
from service import Calculator

calc_module = HandlerModule("calc.").service(Calculator())
log_module = HandlerModule().handler("log", lambda line: print(f"[log] {line}"))

modules = [calc_module, log_module]

if __name__ == "__main__":
    settings = Settings.load_from_env()
    Server(modules).run(settings.port)
