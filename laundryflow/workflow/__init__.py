"""Order lifecycle: status graph, guards, transitions, stage views and notifications."""
