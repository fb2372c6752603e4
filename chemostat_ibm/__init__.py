"""chemostat-ibm: individual-based stochastic simulation of a chemostat.

A discrete-time, individual-based model of a flow-through bioreactor:
  - Individuals (tracked by age) wash out with the dilution flow
  - Survivors divide by symmetric fission at a Monod, resource-limited rate
  - A single resource pool is replenished by inflow and consumed by division
  - Replicate ensembles and parameter sweeps over a process pool
  - A continuous ODE reference for checking the discretization
"""

__version__ = "0.1.0"
