"""droidrunner - observe/plan/execute agent for Android UI automation."""
