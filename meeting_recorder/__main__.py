from meeting_recorder.main import run

run()
