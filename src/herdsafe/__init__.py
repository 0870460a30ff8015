"""herdsafe — livestock marketplace core: veterinary RAG assistant and bio-safety gate."""
