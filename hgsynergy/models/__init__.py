"""One-ion hazard models, calibration and mixture combinators"""
