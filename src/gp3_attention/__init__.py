"""Gazepoint GP3 eye-tracker client: wire codec, connection, calibration and session workflow."""
