from class_service.consumer.consumer import main

main()
