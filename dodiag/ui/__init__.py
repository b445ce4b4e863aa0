"""
Terminal output: box-drawing widgets and the run summary.
"""
