"""pterocli: terminal client for Pterodactyl game servers (status, power, files, live console)."""
