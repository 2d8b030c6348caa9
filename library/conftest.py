import matplotlib

# Plots are only written to files during tests
matplotlib.use("Agg")
