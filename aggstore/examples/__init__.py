"""
Example aggregates built on the aggstore core.

- deploys: Deploy lifecycle with REST routes
- shopping: Product stock with reserve/restock routes
- notifications: DynamoDB change-stream observer
"""
