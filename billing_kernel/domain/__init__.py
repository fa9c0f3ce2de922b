"""Pure domain layer: money, clock and the frozen records engines operate on."""
