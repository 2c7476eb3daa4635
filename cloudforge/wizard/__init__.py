"""Wizard core: phases, state, handler contract and controller."""
