"""herdsafe bio-safety — withdrawal locks, quarantine and the listing gate."""
