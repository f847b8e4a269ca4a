import os

# plots are only ever written to files
os.environ.setdefault("MPLBACKEND", "Agg")
