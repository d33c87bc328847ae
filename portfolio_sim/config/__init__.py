"""
Simulation inputs (`SimulationConfig`, `RiskControls`) and environment-backed
runtime settings, all validated at construction time.
"""
