from booking_engine.agents.booking_agent import BookingAgent, TurnOutcome

__all__ = ["BookingAgent", "TurnOutcome"]
