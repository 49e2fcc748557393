from .vehicle_sim import main

main()
