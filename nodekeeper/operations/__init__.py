"""Complete maintenance sequences: pruning, snapshots, restore and state sync."""