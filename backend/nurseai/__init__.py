# Digital Nurse AI core: embeddings, semantic search, health analysis and insights
