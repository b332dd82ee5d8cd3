"""In-memory fakes for exercising the fleet layer without a Minecraft world."""
