"""
Weather-driven electricity load analysis and forecasting.
"""
