"""
Solar Plant Network Simulator
=============================

Discrete-time power-balance engine for solar plant designs with:
- Panels, batteries, loads and grid connections wired into a network
- Breakers and panels acting as protective devices
- Priority-based source balancing per electrical island
- A rule controller (PLC) for interlocks and time schedules

Architecture:
- topology/: Equipment model, adjacency, grid reachability, islands
- resources/: Battery limits and state, load conversion, solar profile
- flow/: Priority balancer and the flow engine
- control/: Protection state machine and rule controller
- simulation/: Tick driver and run history
"""

__version__ = "1.0.0"
