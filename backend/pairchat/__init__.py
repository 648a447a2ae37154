"""pairchat: real-time one-to-one messaging relay."""
