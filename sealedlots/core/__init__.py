"""Core auction state machine, arithmetic, access control and storage"""
